"""Run result model."""

from pydantic import BaseModel, ConfigDict


class RunResult(BaseModel):
    """Terminal outcome of one guarded command.

    Attributes:
        exit_code: Exit code of the command (1 if it could not be started
            or was terminated by a signal).
        stdout: Captured standard output, only when stdio is ``pipe``.
        stderr: Captured standard error, only when stdio is ``pipe``.
    """

    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: str | None = None
    stderr: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
