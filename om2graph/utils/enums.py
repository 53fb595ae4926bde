import numpy as np

from om2graph.errors import UnknownDtypeError

OM_SIGNATURE = b'IMOD'

# The on-disk header region is fixed, whatever the declared size says.
OM_HEADER_REGION_SIZE = 256
OM_PARTITION_ENTRY_SIZE = 12

MODEL_DEF = 0
MODEL_WEIGHT = 1
TASK_INFO = 2
TBE_KERNELS = 3
CUST_AICPU_KERNELS = 4
DEVICE_CONFIG = 5

PARTITION_TYPES = {
    MODEL_DEF: 'MODEL_DEF',
    MODEL_WEIGHT: 'MODEL_WEIGHT',
    TASK_INFO: 'TASK_INFO',
    TBE_KERNELS: 'TBE_KERNELS',
    CUST_AICPU_KERNELS: 'CUST_AICPU_KERNELS',
    DEVICE_CONFIG: 'DEVICE_CONFIG',
}

MODEL_TYPES = {
    0: 'IR model',
    1: 'standard model',
    2: 'OM Tiny model',
}

MODEL_MODES = {
    0: 'offline',
    1: 'online',
}

# Indexed by ge.proto.DataType ordinal.
OM_DTYPES = [
    'undefined', 'float32', 'float16', 'int8', 'uint8', 'int16', 'uint16', 'int32',
    'int64', 'uint32', 'uint64', 'boolean', 'float64', 'string', 'dual_sub_int8', 'dual_sub_uint8',
    'complex64', 'complex128', 'qint8', 'qint16', 'qint32', 'quint8', 'quint16', 'resource',
    'stringref', 'dual', 'variant', 'bfloat16', 'int4', 'uint1', 'int2',
]

OM_DTYPES_TO_NUMPY_DTYPES = {
    'float16': np.dtype('float16'),
    'float32': np.dtype('float32'),
    'float64': np.dtype('float64'),

    'uint8': np.dtype('uint8'),
    'uint16': np.dtype('uint16'),
    'uint32': np.dtype('uint32'),
    'uint64': np.dtype('uint64'),

    'int8': np.dtype('int8'),
    'int16': np.dtype('int16'),
    'int32': np.dtype('int32'),
    'int64': np.dtype('int64'),

    'boolean': np.dtype('bool_'),

    'complex64': np.dtype('complex64'),
    'complex128': np.dtype('complex128'),

    # Quantized types are stored as their integer carrier.
    'qint8': np.dtype('int8'),
    'qint16': np.dtype('int16'),
    'qint32': np.dtype('int32'),
    'quint8': np.dtype('uint8'),
    'quint16': np.dtype('uint16'),
}

# Ops whose output shape falls back to the first input's shape.
INPUT_PRODUCING_OPS = [
    'Data',
    'ImageData',
    'DynamicImageData',
]

CONSTANT_OP = 'Const'


def dtype(value: int) -> str:
    value = int(value)
    if 0 <= value < len(OM_DTYPES):
        return OM_DTYPES[value]
    raise UnknownDtypeError(value)
