"""arraycheck – validate binary array files against their declared metadata."""

__version__ = "0.1.0"

from .datatypes import (
    DataType, DataTypeInfo, REGISTRY, MAX_ARRAY_NBYTES, array_nbytes, lookup,
)
from .descriptor import (
    ArrayDescriptor, SpecialConstants, Statistics, SPECIAL_CONSTANT_NAMES,
    dump_descriptor_index, load_descriptor_index,
)
from .engine import ArrayResult, ValidationEngine
from .errors import (
    ArithmeticOverflowError, ArrayCheckError, DescriptorError,
    ErrorKind, Severity, UnknownDataTypeError, ValidationError,
)
from .region import FileRegion
from .validators import (
    ElementScanValidator, SizeCheckValidator, Strategy,
    is_eligible, select_strategy, short_file_error,
)

__all__ = [
    "__version__",
    "DataType", "DataTypeInfo", "REGISTRY", "MAX_ARRAY_NBYTES",
    "array_nbytes", "lookup",
    "ArrayDescriptor", "SpecialConstants", "Statistics", "SPECIAL_CONSTANT_NAMES",
    "dump_descriptor_index", "load_descriptor_index",
    "ArrayResult", "ValidationEngine",
    "ArithmeticOverflowError", "ArrayCheckError", "DescriptorError",
    "ErrorKind", "Severity", "UnknownDataTypeError", "ValidationError",
    "FileRegion",
    "ElementScanValidator", "SizeCheckValidator", "Strategy",
    "is_eligible", "select_strategy", "short_file_error",
]
