"""Feature detection and shared-file integration."""

from layerkit.integration.container import Binding, ContainerModel, build_binding, parse_container
from layerkit.integration.detector import (
    DirectorySnapshot,
    FeatureRecord,
    LayerKind,
    LayerRule,
    MemorySnapshot,
    ProjectInventory,
    default_layer_rules,
    detect_features,
)
from layerkit.integration.entrypoint import EntrypointModel, RouteBlock, build_route_block, parse_entrypoint
from layerkit.integration.merger import (
    FeatureOutcome,
    FeatureState,
    IntegrationReport,
    UnrecognizedFile,
    merge,
)

__all__ = [
    "Binding",
    "ContainerModel",
    "DirectorySnapshot",
    "EntrypointModel",
    "FeatureOutcome",
    "FeatureRecord",
    "FeatureState",
    "IntegrationReport",
    "LayerKind",
    "LayerRule",
    "MemorySnapshot",
    "ProjectInventory",
    "RouteBlock",
    "UnrecognizedFile",
    "build_binding",
    "build_route_block",
    "default_layer_rules",
    "detect_features",
    "merge",
    "parse_container",
    "parse_entrypoint",
]
