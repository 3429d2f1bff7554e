from .aws_kms import AwsKmsKeyService
from .base import KeyHandle, KeyService
from .local import LocalKeyService
from .remote import HttpKeyService

__all__ = ["AwsKmsKeyService", "HttpKeyService", "KeyHandle", "KeyService", "LocalKeyService"]
