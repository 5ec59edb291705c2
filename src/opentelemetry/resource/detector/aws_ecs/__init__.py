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

import logging
import os
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from opentelemetry.sdk.resources import Resource, ResourceDetector
from opentelemetry.semconv.resource import (
    AwsEcsLaunchtypeValues,
    CloudPlatformValues,
    CloudProviderValues,
    ResourceAttributes,
)

from ._constants import (
    _AWSLOGS_DRIVER,
    _AWSLOGS_GROUP,
    _AWSLOGS_STREAM,
    _CLUSTER,
    _CONTAINER_ARN,
    _CONTAINER_ID_LENGTH,
    _DEFAULT_CGROUP_PATH,
    _DEFAULT_TIMEOUT,
    _ECS_ARN_REGION_ACCOUNT_PATTERN,
    _ECS_CONTAINER_METADATA_URI,
    _ECS_CONTAINER_METADATA_URI_V4,
    _FAMILY,
    _LAUNCH_TYPE,
    _LOG_DRIVER,
    _LOG_OPTIONS,
    _REVISION,
    _TASK_ARN,
)
from ._metadata import (
    EcsMetadataError,
    MissingFieldError,
    UnparseableArnError,
    UnrecognizedLaunchTypeError,
    fetch_metadata_document,
    require_field,
    task_metadata_url,
)

__all__ = [
    "AwsEcsResourceDetector",
    "EcsMetadataError",
    "MissingFieldError",
    "UnparseableArnError",
    "UnrecognizedLaunchTypeError",
    "extract_metadata_v4_attributes",
    "extract_resource_attributes",
    "get_container_id",
    "is_ecs_process",
]

logger = logging.getLogger(__name__)

AttributeValue = Union[str, Sequence[str]]
Attributes = List[Tuple[str, AttributeValue]]

_LAUNCH_TYPES = {
    "ec2": AwsEcsLaunchtypeValues.EC2.value,
    "fargate": AwsEcsLaunchtypeValues.FARGATE.value,
}


def is_ecs_process(environ: Mapping[str, str]) -> bool:
    return (
        environ.get(_ECS_CONTAINER_METADATA_URI) is not None
        or environ.get(_ECS_CONTAINER_METADATA_URI_V4) is not None
    )


def get_container_id(path: str = _DEFAULT_CGROUP_PATH) -> Optional[str]:
    """Returns the trailing 64 characters of the first line in the cgroup
    file at ``path`` that is long enough to hold a container ID, or None.
    """
    with open(path, encoding="utf8") as container_info_file:
        for raw_line in container_info_file:
            line = raw_line.strip()
            # Subsequent IDs should be the same, exit if found one
            if len(line) > _CONTAINER_ID_LENGTH:
                return line[-_CONTAINER_ID_LENGTH:]
    return None


def extract_resource_attributes(container_id: Optional[str]) -> Attributes:
    return [
        (ResourceAttributes.CLOUD_PROVIDER, CloudProviderValues.AWS.value),
        (
            ResourceAttributes.CLOUD_PLATFORM,
            CloudPlatformValues.AWS_ECS.value,
        ),
        (ResourceAttributes.CONTAINER_ID, container_id),
    ]


def _get_cluster_arn(cluster: str, container_arn: str) -> str:
    if cluster.startswith("arn:"):
        return cluster
    base_arn = container_arn[: container_arn.rindex(":")]
    return f"{base_arn}:cluster/{cluster}"


def _get_launch_type(launch_type) -> str:
    value = None
    if isinstance(launch_type, str):
        value = _LAUNCH_TYPES.get(launch_type.lower())
    if value is None:
        raise UnrecognizedLaunchTypeError(launch_type)
    return value


def _get_logs_attributes(
    metadata_container, container_arn: str
) -> Attributes:
    log_options = metadata_container.get(_LOG_OPTIONS)
    if not isinstance(log_options, dict):
        raise MissingFieldError(_LOG_OPTIONS)

    logs_group_name = require_field(log_options, _AWSLOGS_GROUP)
    logs_stream_name = require_field(log_options, _AWSLOGS_STREAM)

    # Log options carry neither the account nor, reliably, the region.
    match = _ECS_ARN_REGION_ACCOUNT_PATTERN.match(container_arn)
    if not match:
        raise UnparseableArnError(container_arn)
    logs_region, aws_account = match.group(1), match.group(2)

    logs_group_arn = (
        f"arn:aws:logs:{logs_region}:{aws_account}:log-group:{logs_group_name}"
    )
    return [
        (ResourceAttributes.AWS_LOG_GROUP_NAMES, [logs_group_name]),
        (ResourceAttributes.AWS_LOG_GROUP_ARNS, [f"{logs_group_arn}:*"]),
        (ResourceAttributes.AWS_LOG_STREAM_NAMES, [logs_stream_name]),
        (
            ResourceAttributes.AWS_LOG_STREAM_ARNS,
            [f"{logs_group_arn}:log-stream:{logs_stream_name}"],
        ),
    ]


def extract_metadata_v4_attributes(
    environ: Mapping[str, str], timeout: float = _DEFAULT_TIMEOUT
) -> Attributes:
    """Queries the task metadata endpoint v4 for the container and its task.

    Returns an empty list when the endpoint is not advertised (v3 only).
    Raises ``EcsMetadataError`` subclasses for malformed documents and lets
    transport errors from urllib propagate.
    """
    metadata_v4_endpoint = environ.get(_ECS_CONTAINER_METADATA_URI_V4)
    if not metadata_v4_endpoint:
        return []

    metadata_container = fetch_metadata_document(metadata_v4_endpoint, timeout)
    metadata_task = fetch_metadata_document(
        task_metadata_url(metadata_v4_endpoint), timeout
    )

    container_arn = require_field(metadata_container, _CONTAINER_ARN)
    cluster_arn = _get_cluster_arn(
        require_field(metadata_task, _CLUSTER), container_arn
    )
    launch_type = _get_launch_type(require_field(metadata_task, _LAUNCH_TYPE))
    log_driver = require_field(metadata_container, _LOG_DRIVER)

    attributes = [
        (ResourceAttributes.AWS_ECS_CONTAINER_ARN, container_arn),
        (ResourceAttributes.AWS_ECS_CLUSTER_ARN, cluster_arn),
        (ResourceAttributes.AWS_ECS_LAUNCHTYPE, launch_type),
    ]
    for key, field in (
        (ResourceAttributes.AWS_ECS_TASK_ARN, _TASK_ARN),
        (ResourceAttributes.AWS_ECS_TASK_FAMILY, _FAMILY),
        (ResourceAttributes.AWS_ECS_TASK_REVISION, _REVISION),
    ):
        value = metadata_task.get(field)
        if value is not None:
            attributes.append((key, value))

    if log_driver == _AWSLOGS_DRIVER:
        attributes.extend(
            _get_logs_attributes(metadata_container, container_arn)
        )

    return attributes


class AwsEcsResourceDetector(ResourceDetector):
    """Detects attribute values only available when the app is running on AWS
    Elastic Container Service (ECS) and returns them in a Resource.

    ``environ`` defaults to ``os.environ`` and ``cgroup_path`` to
    ``/proc/self/cgroup``; both can be replaced for testing.
    """

    def __init__(
        self,
        raise_on_error: bool = False,
        environ: Optional[Mapping[str, str]] = None,
        cgroup_path: str = _DEFAULT_CGROUP_PATH,
        timeout: float = _DEFAULT_TIMEOUT,
    ):
        super().__init__(raise_on_error=raise_on_error)
        self._environ = environ
        self._cgroup_path = cgroup_path
        self._timeout = timeout

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def detect(self) -> "Resource":
        attributes = self.detect_attributes()
        if attributes is None:
            return Resource.get_empty()
        return Resource(dict(attributes))

    def detect_attributes(self) -> Optional[Attributes]:
        """Returns the ECS resource attributes, or None when the process is
        not running on ECS.

        Container ID and task metadata are collected independently: a
        failure in one is logged and leaves the other's attributes intact.
        """
        environ = self.environ
        if not is_ecs_process(environ):
            logger.debug(
                "Missing %s and %s therefore process is not on ECS.",
                _ECS_CONTAINER_METADATA_URI,
                _ECS_CONTAINER_METADATA_URI_V4,
            )
            return None

        resource_attributes = []

        try:
            container_id = get_container_id(self._cgroup_path)
            if container_id is None:
                logger.debug(
                    "No container ID found in %s", self._cgroup_path
                )
            resource_attributes.extend(
                (key, value)
                for key, value in extract_resource_attributes(container_id)
                if value is not None
            )
        # pylint: disable=broad-except
        except Exception as exception:
            self._handle_exception(exception)

        try:
            resource_attributes.extend(
                extract_metadata_v4_attributes(environ, self._timeout)
            )
        # pylint: disable=broad-except
        except Exception as exception:
            self._handle_exception(exception)

        return resource_attributes

    def _handle_exception(self, exception: Exception) -> None:
        logger.warning("%s failed: %s", self.__class__.__name__, exception)
        if self.raise_on_error:
            raise exception
