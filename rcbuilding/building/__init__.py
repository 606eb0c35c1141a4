from .materials import (
    Material,
    MaterialLibrary
)
from .construction_assembly import (
    Layer,
    HeatingMarker,
    LayeredConstruction,
    ResistiveConstruction,
    ResolvedConstruction,
    resolve_construction,
    build_construction
)
from .configuration import (
    PSEUDO_ZONE_NAMES,
    Zone,
    SubBoundary,
    Boundary,
    BuildingConfiguration
)
