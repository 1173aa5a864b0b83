# Quest board: shared quests, map markers and categories with realtime fan-out
#
# Components:
#   schema.py    - Data model (Quest, Marker, Analytics, DEFAULT_CATEGORIES)
#   store.py     - In-memory store mirrored to a JSON file (debounced + heartbeat saves)
#   registry.py  - Connected sessions and admin classification
#   gateway.py   - Socket.IO event routing and broadcast
#   config.py    - YAML-backed runtime configuration
