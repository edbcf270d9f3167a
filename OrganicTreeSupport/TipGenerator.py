import logging
from typing import List

import numpy as np

from .SupportElement import GenerationContext, OverhangSample, SupportElement, layer_index

logger = logging.getLogger(__name__)


def optimize_overhang_points(overhangs: List[OverhangSample], min_distance: float) -> List[OverhangSample]:
    """Drop samples closer than min_distance to an earlier kept sample. The first sample wins."""
    optimized: List[OverhangSample] = []
    for overhang in overhangs:
        too_close = False
        for existing in optimized:
            if np.linalg.norm(overhang.position - existing.position) < min_distance:
                too_close = True
                break
        if not too_close:
            optimized.append(overhang)
    return optimized


class TipGenerator:
    """Turns overhang samples into the tip elements the trees grow from."""

    def __init__(self, context: GenerationContext):
        self._context = context

    def generateTips(self, overhangs: List[OverhangSample]) -> List[SupportElement]:
        config = self._context.config
        accepted = optimize_overhang_points(overhangs, config.tree_support_branch_distance)

        tips = []
        for overhang in accepted:
            layer = layer_index(overhang.position[2], config)
            tip = self._context.createElement(
                overhang.position,
                layer,
                0,
                to_buildplate=True,
                to_model_gracious=False,
                branch=len(tips),
            )
            self._context.layers.add(layer, tip.id)
            tips.append(tip)
            logger.debug(f"Tip placed at ({overhang.position[0]:.2f}, {overhang.position[1]:.2f}, "
                         f"{overhang.position[2]:.2f}) on layer {layer}")

        logger.info(f"Generated {len(tips)} support tips from {len(overhangs)} overhang points")
        return tips
