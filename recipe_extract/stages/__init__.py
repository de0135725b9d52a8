# Pipeline stages
from .acquirer import SourceAcquirer, AcquisitionError, AcquisitionTimeout
from .normalizer import Normalizer, normalize
from .content_extractor import ContentExtractor, extract_content
from .parser import StructuralParser, parse_structure
from .validator import Validator, validate

__all__ = [
    "SourceAcquirer",
    "AcquisitionError",
    "AcquisitionTimeout",
    "Normalizer",
    "normalize",
    "ContentExtractor",
    "extract_content",
    "StructuralParser",
    "parse_structure",
    "Validator",
    "validate"
]
