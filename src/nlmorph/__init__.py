from . import diadem, io, nlxml, swc, topology, transform
from .exceptions import ConfigError, DataNotFound, FormatError, NlmorphError, StructuralError
from .geometry import Color, Point
from .model import Branch, Contour, Image, Marker, NeuronData, Tree

__all__ = [
    "Branch",
    "Color",
    "ConfigError",
    "Contour",
    "DataNotFound",
    "FormatError",
    "Image",
    "Marker",
    "NeuronData",
    "NlmorphError",
    "Point",
    "StructuralError",
    "Tree",
    "diadem",
    "io",
    "nlxml",
    "swc",
    "topology",
    "transform",
]
