import logging

import numpy as np

from msfeatures.core.container import MsContainer
from msfeatures.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def log_transform(
    container: MsContainer,
    assay_name: str,
    new_name: str,
    base: float = 2.0,
    pc: float = 0.0,
) -> MsContainer:
    """
    Apply a log transformation to an assay and store it as a new assay.

    Args:
        container: The MsContainer object.
        assay_name: Name of the assay to transform.
        new_name: Name of the new assay.
        base: Log base (default: 2.0).
        pc: Pseudo-count added before taking the log (default: 0.0).

    Returns:
        A new container holding the transformed assay, linked one-to-one to
        its source. Zeros without a pseudo-count become -inf; run
        ``zero_is_na`` first to keep them missing.
    """
    if base <= 0 or base == 1:
        raise ValidationError(f"Log base must be positive and different from 1, got {base}")

    X = container.get_assay(assay_name).X

    # log_base(X + pc) via change of base
    with np.errstate(divide="ignore", invalid="ignore"):
        X_log = np.log(X + pc) / np.log(base)

    logger.info("log%s transform of '%s' -> '%s'", base, assay_name, new_name)
    return container.add_transformed_assay(
        assay_name,
        new_name,
        X_log,
        action="log_transform",
        params={"base": base, "pc": pc},
        description=f"Log{base} transformation applied to {assay_name}.",
    )
