"""
JSON documents for sections, reaches, elements, controls and systems.

Records are tagged: sections and elements carry a ``"type"`` and controls a
``"kind"``. Keys a reader does not know are skipped, so older readers can
load newer documents as long as the tags are known.
"""
import json
import logging
from dataclasses import fields, is_dataclass
from enum import Enum

import numpy as np

from .boundary import Control, DownstreamControl, UpstreamControl
from .channel import ChannelReach, StationSection, TransitionPolicy
from .cross_section import SECTION_TYPES, Berm, Compound, CrossSection
from .exceptions import NotFullyDefined
from .network import ELEMENT_TYPES, ChannelSystem, Tributary
from .rating_curve import RatingCurve
from .structures import BrinkDepthPolicy

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

ELEMENT_KINDS = {cls.kind: cls for cls in ELEMENT_TYPES}


def _plain(value):
    """Converts a field value to JSON types."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (CrossSection, Berm)):
        return to_dict(value)
    if isinstance(value, (tuple, list, np.ndarray)):
        return [_plain(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def _record(obj, **tags) -> dict:
    data = dict(tags)
    for f in fields(obj):
        data[f.name] = _plain(getattr(obj, f.name))
    return data


def _known(cls, data: dict) -> dict:
    """Keeps the keys that are fields of ``cls``."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def _tag(data: dict, key: str) -> str:
    if not isinstance(data, dict) or key not in data:
        raise NotFullyDefined(f"Record has no '{key}' tag.")
    return data[key]


## Records
## ------------------------------------------------------------------

def _rating_to_dict(curve: RatingCurve) -> dict:
    if not curve.defined:
        raise NotFullyDefined("Cannot serialize an undefined rating curve.")

    data = {'type': curve.type, 'stage_shift': curve.stage_shift}
    if curve.type == 'table':
        data['discharges'] = [float(q) for q in curve.discharges]
        data['stages'] = [float(h) for h in curve.stages]
        return data

    data['a'], data['b'] = curve.a, curve.b
    if curve.type == 'polynomial':
        data['c'] = curve.c
    if curve.discharges is not None:
        data['discharges'] = [float(q) for q in curve.discharges]
        data['stages'] = [float(h) for h in curve.stages]
    return data


def _rating_from_dict(data: dict) -> RatingCurve:
    type = _tag(data, 'type')
    curve = RatingCurve()
    if type == 'table':
        curve.tabulate(data['discharges'], data['stages'])
        return curve
    if type not in ('power', 'polynomial'):
        raise NotFullyDefined(f"Unknown rating curve type {type!r}.")

    curve.set(type, data['a'], data['b'], data.get('c'), stage_shift=data.get('stage_shift', 0.0))
    if 'discharges' in data:
        curve.discharges = np.asarray(data['discharges'], dtype=np.float64)
        curve.stages = np.asarray(data['stages'], dtype=np.float64)
    return curve


def _section_from_dict(data: dict) -> CrossSection:
    kind = _tag(data, 'type')
    if kind not in SECTION_TYPES:
        raise NotFullyDefined(f"Unknown section type {kind!r}.")
    cls = SECTION_TYPES[kind]
    values = _known(cls, data)

    if cls is Compound:
        values['main'] = _section_from_dict(values['main'])
        values['berms'] = tuple(Berm(**_known(Berm, b)) for b in values.get('berms', ()))
    for key in ('offsets', 'elevations'):
        if key in values:
            values[key] = tuple(values[key])
    return cls(**values)


def _control_to_dict(control: Control) -> dict:
    end = 'upstream' if isinstance(control, UpstreamControl) else 'downstream'
    data = {'kind': control.kind.value, 'end': end}
    if control.depth is not None:
        data['depth'] = control.depth
    if control.wse is not None:
        data['wse'] = control.wse
    if control.rating_curve is not None:
        data['rating_curve'] = _rating_to_dict(control.rating_curve)
        data['reference'] = control.reference
    if control.brink_policy is not BrinkDepthPolicy.CRITICAL:
        data['brink_policy'] = control.brink_policy.value
    return data


def _control_from_dict(data: dict, end: str = None) -> Control:
    kind = _tag(data, 'kind')
    end = end or data.get('end', 'downstream')
    cls = UpstreamControl if end == 'upstream' else DownstreamControl

    values = _known(cls, data)
    values['kind'] = kind
    if 'rating_curve' in values:
        values['rating_curve'] = _rating_from_dict(values['rating_curve'])
    if 'brink_policy' in values:
        values['brink_policy'] = BrinkDepthPolicy(values['brink_policy'])
    return cls(**values)


def _reach_to_dict(reach: ChannelReach) -> dict:
    return {
        'type': 'reach',
        'id': reach.id,
        'discharge': reach.discharge,
        'transition': reach.transition.value,
        'stations': [
            {'station': s.station, 'bed_elevation': s.bed_elevation,
             'section': to_dict(s.section), 'manning_n': s.manning_n}
            for s in reach.stations
        ],
    }


def _reach_from_dict(data: dict) -> ChannelReach:
    stations = []
    for s in data['stations']:
        values = _known(StationSection, s)
        values['section'] = _section_from_dict(values['section'])
        stations.append(StationSection(**values))
    return ChannelReach(id=data['id'], stations=tuple(stations), discharge=data.get('discharge'),
                        transition=TransitionPolicy(data.get('transition', 'interpolate')))


def _item_from_dict(data: dict):
    kind = _tag(data, 'type')
    if kind == 'reach':
        return _reach_from_dict(data)
    if kind not in ELEMENT_KINDS:
        raise NotFullyDefined(f"Unknown element type {kind!r}.")
    cls = ELEMENT_KINDS[kind]
    return cls(**_known(cls, data))


def _tributary_to_dict(tributary: Tributary) -> dict:
    return {
        'type': 'tributary',
        'id': tributary.id,
        'junction_id': tributary.junction_id,
        'discharge': tributary.discharge,
        'upstream_control': to_dict(tributary.upstream_control) if tributary.upstream_control else None,
        'items': [to_dict(item) for item in tributary.items],
    }


def _tributary_from_dict(data: dict) -> Tributary:
    control = data.get('upstream_control')
    return Tributary(
        id=data['id'],
        junction_id=data['junction_id'],
        items=tuple(_item_from_dict(item) for item in data['items']),
        discharge=data.get('discharge'),
        upstream_control=_control_from_dict(control, 'upstream') if control else None,
    )


def _system_to_dict(system: ChannelSystem) -> dict:
    return {
        'type': 'system',
        'version': FORMAT_VERSION,
        'name': system.name,
        'discharge': system.discharge,
        'downstream_control': to_dict(system.downstream_control) if system.downstream_control else None,
        'upstream_control': to_dict(system.upstream_control) if system.upstream_control else None,
        'items': [to_dict(item) for item in system.items],
        'tributaries': [_tributary_to_dict(t) for t in system.tributaries],
    }


def _system_from_dict(data: dict) -> ChannelSystem:
    version = data.get('version', FORMAT_VERSION)
    if version > FORMAT_VERSION:
        logger.warning("Reading a version %s document with a version %s reader; unknown keys are skipped.",
                       version, FORMAT_VERSION)

    downstream = data.get('downstream_control')
    upstream = data.get('upstream_control')
    return ChannelSystem(
        name=data['name'],
        items=tuple(_item_from_dict(item) for item in data['items']),
        discharge=data.get('discharge'),
        downstream_control=_control_from_dict(downstream, 'downstream') if downstream else None,
        upstream_control=_control_from_dict(upstream, 'upstream') if upstream else None,
        tributaries=tuple(_tributary_from_dict(t) for t in data.get('tributaries', ())),
    )


## Public interface
## ------------------------------------------------------------------

def to_dict(obj) -> dict:
    """
    Converts a model object to a tagged dictionary of JSON types.

    Parameters
    ----------
    obj : CrossSection, Berm, ChannelReach, element, Control, RatingCurve, Tributary or ChannelSystem
        The object to convert.

    Returns
    -------
    dict

    """
    if isinstance(obj, ChannelSystem):
        return _system_to_dict(obj)
    if isinstance(obj, Tributary):
        return _tributary_to_dict(obj)
    if isinstance(obj, ChannelReach):
        return _reach_to_dict(obj)
    if isinstance(obj, Control):
        return _control_to_dict(obj)
    if isinstance(obj, RatingCurve):
        return _rating_to_dict(obj)
    if isinstance(obj, CrossSection):
        return _record(obj, type=obj.kind)
    if isinstance(obj, ELEMENT_TYPES):
        return _record(obj, type=obj.kind)
    if isinstance(obj, Berm) or is_dataclass(obj):
        return _record(obj)
    raise TypeError(f"Cannot serialize {type(obj).__name__}.")


def from_dict(data: dict):
    """Rebuilds a model object from its tagged dictionary.

    Raises:
        NotFullyDefined: If the record has no tag or an unknown one.
    """
    if not isinstance(data, dict):
        raise NotFullyDefined("Expected a JSON object.")
    if 'kind' in data and 'type' not in data:
        return _control_from_dict(data)

    tag = _tag(data, 'type')
    if tag == 'system':
        return _system_from_dict(data)
    if tag == 'tributary':
        return _tributary_from_dict(data)
    if tag in SECTION_TYPES:
        return _section_from_dict(data)
    if tag in ('table', 'power', 'polynomial'):
        return _rating_from_dict(data)
    return _item_from_dict(data)


def dumps(obj, indent: int = 2) -> str:
    return json.dumps(to_dict(obj), indent=indent)


def loads(text: str):
    return from_dict(json.loads(text))
