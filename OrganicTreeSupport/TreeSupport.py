import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

import numpy

from .CentralizedPathGrower import CentralizedPathGrower
from .GeometryEmitter import GeometryEmitter, Primitive
from .LayerPropagation import LayerPropagationEngine
from .ModelVolumes import ModelVolumes
from .OverhangDetector import OverhangDetector
from .SupportElement import GenerationContext, OverhangSample
from .TipGenerator import TipGenerator, optimize_overhang_points
from .config import TreeSupportConfig
from .targets import Anchor, SolidTarget

logger = logging.getLogger(__name__)


class TreeSupport:
    """Tree support generation for a set of solids.

    Two strategies are offered:

    - generateSupportAreas(): Cura style layer pathing. Tips are placed on the
      detected overhangs and grown layer by layer down to the build plate,
      merging branches whose influence areas overlap.
    - generateFromCentralPoint(): every overhang is reached by its own branch
      grown from the anchor, e.g. the base of a central support column.

    Layer pathing is fully deterministic. The seed only drives the organic
    drift of the centralized branches.

    Every call starts from scratch; nothing is kept between calls apart from
    the inputs given to the constructor.
    """

    def __init__(self, targets: Sequence[SolidTarget], anchor: Optional[Anchor] = None,
                 config: Optional[TreeSupportConfig] = None, seed: Optional[int] = None):
        self._config = (config or TreeSupportConfig()).validate()
        self._targets = list(targets)
        self._anchor = anchor or Anchor((0.0, 0.0, self._config.build_plate_z))
        self._seed = seed
        self._model_volumes = ModelVolumes(self._targets, self._config)
        self._overhang_detector = OverhangDetector(self._config)
        self._context: Optional[GenerationContext] = None

        logger.debug(f"Tree support initialized with {len(self._targets)} targets, anchor {self._anchor}")

    @property
    def config(self) -> TreeSupportConfig:
        return self._config

    @property
    def modelVolumes(self) -> ModelVolumes:
        return self._model_volumes

    @property
    def context(self) -> Optional[GenerationContext]:
        """Context of the last layer pathing pass, for inspection of the element graph."""
        return self._context

    def detectOverhangs(self) -> List[OverhangSample]:
        return self._overhang_detector.detectAllOverhangs(self._targets)

    def generateSupportAreas(self, should_cancel: Optional[Callable[[], bool]] = None) -> List[Primitive]:
        """Run the layer pathing strategy.

        Args:
            should_cancel: Optional callback checked once per layer. A cancelled
                pass still returns the geometry of the layers processed so far.

        Returns:
            Trunk and connector primitives, ordered from the build plate upward.
        """
        logger.info("Starting tree support generation")
        self._context = GenerationContext(self._config)
        try:
            overhangs = self.detectOverhangs()
            if not overhangs:
                logger.info("No overhangs detected, no support needed")
                return []

            tips = TipGenerator(self._context).generateTips(overhangs)
            if not tips:
                logger.info("No tips generated, no support needed")
                return []

            engine = LayerPropagationEngine(self._context, self._model_volumes)
            completed = engine.createLayerPathing(should_cancel)
            if not completed:
                logger.warning("Tree support generation was cancelled, returning partial geometry")

            primitives = GeometryEmitter(self._context).generateSupportGeometry()
        except Exception as e:
            logger.exception(f"Error in tree support generation: {e}")
            raise

        logger.info(f"Tree support generation completed with {len(primitives)} primitives")
        return primitives

    def generateFromCentralPoint(self, max_workers: Optional[int] = None) -> List[Primitive]:
        """Grow one branch from the anchor to every overhang.

        Args:
            max_workers: Grow the branches on a thread pool of this size. The
                result is the same as growing them one after another.

        Returns:
            The primitives of all branches, concatenated in overhang order.
        """
        logger.info(f"Generating centralized tree supports from {self._anchor.position.tolist()}")
        try:
            overhangs = optimize_overhang_points(self.detectOverhangs(),
                                                 self._config.tree_support_branch_distance)
            if not overhangs:
                logger.info("No overhangs detected requiring support")
                return []

            seeds = numpy.random.SeedSequence(self._seed).spawn(len(overhangs))

            def grow(index: int) -> List[Primitive]:
                grower = CentralizedPathGrower(self._config, self._model_volumes,
                                               numpy.random.default_rng(seeds[index]))
                return grower.growPath(self._anchor.position, overhangs[index], branch_index=index)

            if max_workers is not None and max_workers > 1:
                with ThreadPoolExecutor(max_workers=max_workers) as executor:
                    paths = list(executor.map(grow, range(len(overhangs))))
            else:
                paths = [grow(index) for index in range(len(overhangs))]
        except Exception as e:
            logger.exception(f"Error in centralized tree support generation: {e}")
            raise

        primitives = [primitive for path in paths for primitive in path]
        logger.info(f"Generated {len(primitives)} support elements for {len(overhangs)} overhangs")
        return primitives
