"""Construction of aiobotocore DynamoDB clients for the session store.

Credentials and region are always passed to the client explicitly; process-wide
SDK configuration is never touched.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiobotocore.session
from aiobotocore.session import ClientCreatorContext

from dynamodb_sessions.core.config import DEFAULT_REGION

logger = logging.getLogger(__name__)

# Keys of an AWS SDK JSON config file mapped to botocore client kwargs
_CONFIG_FILE_KEYS = {
    "accessKeyId": "aws_access_key_id",
    "secretAccessKey": "aws_secret_access_key",
    "sessionToken": "aws_session_token",
    "region": "region_name",
}


def load_aws_config_file(path: str) -> Dict[str, str]:
    """
    Read an AWS SDK style JSON config file into client kwargs.

    The file looks like:
        {"accessKeyId": "...", "secretAccessKey": "...", "region": "eu-west-1"}

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a JSON object
    """
    config_path = Path(path).expanduser()
    logger.debug(f"Loading AWS client configuration from {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid AWS config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"AWS config file {config_path} must contain a JSON object")

    return {
        kwarg: str(data[key])
        for key, kwarg in _CONFIG_FILE_KEYS.items()
        if data.get(key)
    }


def build_client_kwargs(
    region: Optional[str] = None,
    aws_config_path: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    aws_session_token: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Resolve keyword arguments for `create_client("dynamodb", ...)`.

    A config file, when given, supplies credentials and region; otherwise the
    explicit keys and `region` (default us-east-1) are used. Without any keys
    botocore falls back to its usual credential chain.
    """
    if aws_config_path:
        kwargs: Dict[str, Any] = load_aws_config_file(aws_config_path)
        kwargs.setdefault("region_name", region or DEFAULT_REGION)
    else:
        kwargs = {"region_name": region or DEFAULT_REGION}
        if aws_access_key_id and aws_secret_access_key:
            kwargs["aws_access_key_id"] = aws_access_key_id
            kwargs["aws_secret_access_key"] = aws_secret_access_key
            if aws_session_token:
                kwargs["aws_session_token"] = aws_session_token

    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url

    return kwargs


def create_dynamodb_client(**client_kwargs: Any) -> ClientCreatorContext:
    """
    Create an aiobotocore DynamoDB client context manager.

    Usage:
        async with create_dynamodb_client(region_name="us-east-1") as client:
            await client.describe_table(TableName="sessions")
    """
    session = aiobotocore.session.get_session()
    logger.debug(f"Creating DynamoDB client in {client_kwargs.get('region_name')}")
    return session.create_client("dynamodb", **client_kwargs)
