from __future__ import annotations

from app.core.settings import KeyServiceType, Settings

from .keyservice import AwsKmsKeyService, HttpKeyService, KeyService, LocalKeyService


def get_key_service(settings: Settings) -> KeyService:
    """
    Select the key service backend based on KEY_SERVICE_TYPE.

    Supported:
    - aws_kms (default): AWS KMS via boto3 (AWS_REGION, optional explicit credentials)
    - remote: HTTP key service at KEY_SERVICE_URL
    - local: in-process keys, DEV_MODE only
    """
    kind = settings.KEY_SERVICE_TYPE
    if kind is KeyServiceType.AWS_KMS:
        return AwsKmsKeyService(
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            default_description=settings.KMS_KEY_DESCRIPTION,
        )
    if kind is KeyServiceType.REMOTE:
        return HttpKeyService(settings.KEY_SERVICE_URL or "", timeout=settings.HTTP_TIMEOUT_SEC)
    if kind is KeyServiceType.LOCAL:
        return LocalKeyService()
    raise ValueError(f"Unsupported KEY_SERVICE_TYPE: {kind}")
