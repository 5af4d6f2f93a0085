"""Clustering source and layer definitions handed to the map renderer."""

SOURCE_ID = "messages"

CLUSTER_MAX_ZOOM = 14
CLUSTER_RADIUS = 50

CLUSTER_LAYER = {
    "id": "clusters",
    "type": "circle",
    "source": SOURCE_ID,
    "filter": ["has", "point_count"],
    "paint": {
        "circle-color": ["step", ["get", "point_count"], "#51bbd6", 50, "#f1f075", 100, "#f28cb1"],
        "circle-radius": ["step", ["get", "point_count"], 20, 100, 30, 750, 40],
    },
}

CLUSTER_COUNT_LAYER = {
    "id": "cluster-count",
    "type": "symbol",
    "source": SOURCE_ID,
    "filter": ["has", "point_count"],
    "layout": {
        "text-field": "{point_count_abbreviated}",
        "text-font": ["DIN Offc Pro Medium", "Arial Unicode MS Bold"],
        "text-size": 12,
    },
}

UNCLUSTERED_POINT_LAYER = {
    "id": "unclustered-point",
    "type": "circle",
    "source": SOURCE_ID,
    "filter": ["!", ["has", "point_count"]],
    "paint": {
        "circle-color": "#11b4da",
        "circle-radius": 6,
        "circle-stroke-width": 1,
        "circle-stroke-color": "#fff",
    },
}

LAYERS = [CLUSTER_LAYER, CLUSTER_COUNT_LAYER, UNCLUSTERED_POINT_LAYER]

# Layers that produce click events.
INTERACTIVE_LAYER_IDS = [CLUSTER_LAYER["id"], UNCLUSTERED_POINT_LAYER["id"]]


def source_config(features: list[dict]) -> dict:
    """GeoJSON source definition with clustering enabled."""
    return {
        "type": "geojson",
        "data": {"type": "FeatureCollection", "features": features},
        "cluster": True,
        "clusterMaxZoom": CLUSTER_MAX_ZOOM,
        "clusterRadius": CLUSTER_RADIUS,
    }
