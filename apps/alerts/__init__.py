"""
Alerts app.

Ingests alert batches from monitoring sources and drives them through the
incident lifecycle:
raw alert → normalized identity → fingerprint → incident + event
"""
