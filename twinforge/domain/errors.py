# Copyright 2026 Pramod Kumar Voola
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

# -----------------------------------------------------------------------------
# PIPELINE ERRORS
# -----------------------------------------------------------------------------
# Every failure that ends a build generation carries the source path of the
# asset that caused it and the pipeline stage it was raised in. The CLI and
# the watch loop report exactly those two fields.
# -----------------------------------------------------------------------------


class PipelineError(Exception):
    """
    Base class for all fatal build-generation errors.

    Attributes:
        source_path: Source-relative path of the offending asset (if any).
        stage: Name of the pipeline stage that failed.
    """

    def __init__(self, message: str, source_path: str | None = None, stage: str = "") -> None:
        super().__init__(message)
        self.source_path = source_path
        self.stage = stage


class ClassificationError(PipelineError):
    """Raised when a file under the source root matches no asset class."""

    def __init__(self, message: str, source_path: str) -> None:
        super().__init__(message, source_path=source_path, stage="classify")


class CompilationError(PipelineError):
    """
    Raised when a transform stage fails.

    The underlying exception is kept in ``cause`` (and chained via ``from``
    at the raise site).
    """

    def __init__(
        self, message: str, source_path: str, stage: str, cause: BaseException | None = None
    ) -> None:
        super().__init__(message, source_path=source_path, stage=stage)
        self.cause = cause


class DuplicateManifestKeyError(PipelineError):
    """Raised when one source id is registered twice in a single generation."""

    def __init__(self, message: str, source_path: str) -> None:
        super().__init__(message, source_path=source_path, stage="manifest")


class ConfigurationError(PipelineError):
    """Raised for invalid target/mode overrides or build state, before any transform runs."""

    def __init__(
        self, message: str, source_path: str | None = None, stage: str = "configure"
    ) -> None:
        super().__init__(message, source_path=source_path, stage=stage)


class CollaboratorError(Exception):
    """Raised by external compile/style/image collaborators."""

    pass
