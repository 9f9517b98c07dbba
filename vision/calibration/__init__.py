"""Calibration session, message protocol and layout normalization."""

from .session import CalibrationSession, CalibrationPhase, Dataset
from .normalizer import (
    normalize, normalize_layout, NormalizedLayout,
    EmptyInputError, DegenerateExtentError
)
from .protocol import (
    CalibrationProtocol, MalformedMessageError,
    encode_dataset, encode_start, decode_control
)
from .layout_store import LayoutStore

__all__ = [
    'CalibrationSession', 'CalibrationPhase', 'Dataset',
    'normalize', 'normalize_layout', 'NormalizedLayout',
    'EmptyInputError', 'DegenerateExtentError',
    'CalibrationProtocol', 'MalformedMessageError',
    'encode_dataset', 'encode_start', 'decode_control',
    'LayoutStore'
]
