# Copyright (c) 2024 Emanuel Lönnberg.
# This tool is released under the terms of the LGPLv3 or higher.

from .config import ConfigurationError, TreeSupportConfig, load_presets, save_presets
from .targets import Anchor, SolidTarget
from .SupportElement import EDGE_OVERHANG, FLOATING_BOTTOM, GenerationContext, LayerTable, OverhangSample, SupportElement
from .ModelVolumes import ModelVolumes
from .OverhangDetector import OverhangDetector
from .TipGenerator import TipGenerator
from .LayerPropagation import LayerPropagationEngine
from .GeometryEmitter import ConnectorPrimitive, GeometryEmitter, TrunkPrimitive
from .CentralizedPathGrower import CentralizedPathGrower
from .TreeSupport import TreeSupport

__version__ = "0.2.0"

__all__ = [
    "Anchor",
    "CentralizedPathGrower",
    "ConfigurationError",
    "ConnectorPrimitive",
    "EDGE_OVERHANG",
    "FLOATING_BOTTOM",
    "GenerationContext",
    "GeometryEmitter",
    "LayerPropagationEngine",
    "LayerTable",
    "ModelVolumes",
    "OverhangDetector",
    "OverhangSample",
    "SolidTarget",
    "SupportElement",
    "TipGenerator",
    "TreeSupport",
    "TreeSupportConfig",
    "TrunkPrimitive",
    "load_presets",
    "save_presets",
]
