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

import re

# cSpell:disable

# Environment injected by the ECS agent

_ECS_CONTAINER_METADATA_URI = "ECS_CONTAINER_METADATA_URI"
_ECS_CONTAINER_METADATA_URI_V4 = "ECS_CONTAINER_METADATA_URI_V4"

# cgroup

_DEFAULT_CGROUP_PATH = "/proc/self/cgroup"
_CONTAINER_ID_LENGTH = 64

# Task metadata endpoint v4

_DEFAULT_TIMEOUT = 5
_TASK_PATH = "/task"

_CONTAINER_ARN = "ContainerARN"
_LOG_DRIVER = "LogDriver"
_LOG_OPTIONS = "LogOptions"
_CLUSTER = "Cluster"
_LAUNCH_TYPE = "LaunchType"
_TASK_ARN = "TaskARN"
_FAMILY = "Family"
_REVISION = "Revision"

# awslogs

_AWSLOGS_DRIVER = "awslogs"
_AWSLOGS_GROUP = "awslogs-group"
_AWSLOGS_STREAM = "awslogs-stream"

_ECS_ARN_REGION_ACCOUNT_PATTERN = re.compile(
    r"arn:aws:ecs:([^:]+):([^:]+):.*"
)
