from .authorization import eip7702_digest, sign_authorization
from .builder import (
    OperationContext,
    UserOperationBuilder,
    build_sponsored_operation,
    build_unsigned_operation,
)
from .calldata import build_execute_batch_call_data, build_factory_data
from .models import EIP7702Authorization, PackedUserOperation, UnpackedUserOperation
from .packing import pack, parse_validation_data, unpack
from .signatures import make_estimation_placeholder_signature, user_op_hash

__all__ = [
    "EIP7702Authorization",
    "OperationContext",
    "PackedUserOperation",
    "UnpackedUserOperation",
    "UserOperationBuilder",
    "build_execute_batch_call_data",
    "build_factory_data",
    "build_sponsored_operation",
    "build_unsigned_operation",
    "eip7702_digest",
    "make_estimation_placeholder_signature",
    "pack",
    "parse_validation_data",
    "sign_authorization",
    "unpack",
    "user_op_hash",
]
