"""
Idenguefy exceptions.

Only remote failures are raised to callers.  Cache and storage problems
are logged and degrade to a miss / no-op instead.
"""


class IdenguefyError(Exception):
    """Base exception for Idenguefy"""

    pass


class TileFetchError(IdenguefyError):
    """Remote map tile could not be fetched or decoded"""

    pass


class ClusterFetchError(IdenguefyError):
    """Dengue cluster dataset could not be fetched or parsed"""

    pass


class SearchError(IdenguefyError):
    """Geocoding search request failed or returned an unusable payload"""

    pass
