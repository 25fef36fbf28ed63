"""Exception types raised by relkin.

Estimator-level errors are per site: the orchestrator catches
InvalidGenotypeError, counts the site as rejected and keeps streaming.
Output-level errors end only the artifact being written.
"""


class InvalidGenotypeError(ValueError):
    """A dosage lies outside the valid range (greater than 2).

    Attributes:
        index: Position of the first offending dosage in the site vector.
        value: The offending dosage.
    """

    def __init__(self, index: int, value: float) -> None:
        self.index = index
        self.value = value
        super().__init__(
            f"Invalid genotype dosage {value!r} at individual {index} "
            f"(expected 0, 1, 2 or a negative missing code)"
        )


class DimensionMismatchError(ValueError):
    """Identifier lists or vectors disagree with the matrix dimensions."""


class EigenNonConvergenceError(RuntimeError):
    """The symmetric eigen solver did not converge."""


class PedigreeError(ValueError):
    """The pedigree is malformed (directed loop, duplicate or unknown person)."""
