# Copyright The OpenTelemetry Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Client for the ECS Task Metadata Endpoint v4.

https://docs.aws.amazon.com/AmazonECS/latest/developerguide/task-metadata-endpoint-v4.html
"""

from json import loads
from typing import Any, Dict
from urllib.request import Request, urlopen

from opentelemetry.context import (
    _SUPPRESS_INSTRUMENTATION_KEY,
    attach,
    detach,
    set_value,
)

from ._constants import _DEFAULT_TIMEOUT, _TASK_PATH


class EcsMetadataError(Exception):
    """Raised when a task metadata document cannot be turned into
    resource attributes."""


class MissingFieldError(EcsMetadataError):
    def __init__(self, field: str):
        super().__init__(f"Required field '{field}' is missing")
        self.field = field


class UnrecognizedLaunchTypeError(EcsMetadataError):
    def __init__(self, launch_type: Any):
        super().__init__(f"Unrecognized launch type '{launch_type}'")
        self.launch_type = launch_type


class UnparseableArnError(EcsMetadataError):
    def __init__(self, arn: str):
        super().__init__(
            f"Cannot parse region and account from the container ARN '{arn}'"
        )
        self.arn = arn


def http_get(url: str, timeout: float = _DEFAULT_TIMEOUT) -> str:
    # The detector's own requests must not show up as spans when urllib
    # is instrumented.
    token = attach(set_value(_SUPPRESS_INSTRUMENTATION_KEY, True))
    try:
        with urlopen(Request(url, method="GET"), timeout=timeout) as response:
            return response.read().decode("utf-8")
    finally:
        detach(token)


def fetch_metadata_document(
    url: str, timeout: float = _DEFAULT_TIMEOUT
) -> Dict[str, Any]:
    document = loads(http_get(url, timeout))
    if not isinstance(document, dict):
        raise EcsMetadataError(
            f"Expected a JSON object from {url}, got {type(document).__name__}"
        )
    return document


def require_field(document: Dict[str, Any], field: str) -> Any:
    value = document.get(field)
    if value is None:
        raise MissingFieldError(field)
    return value


def task_metadata_url(metadata_uri: str) -> str:
    return metadata_uri.rstrip("/") + _TASK_PATH
