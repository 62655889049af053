"""mapengine — layer/state synchronization for an interactive overlay map.

Keeps a persistent map instance, the user's view parameters, and a remotely
fetched point dataset consistent across asynchronous updates.
"""

__version__ = "0.1.0"

from mapengine.view import MapView

__all__ = ["MapView", "__version__"]
