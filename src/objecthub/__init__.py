"""objecthub - control plane for a content-addressed object store.

Objects are addressed by the SHA-256 of their bytes. Each owner gets a
private storage identity per hash, usage is checked against a subscription
quota, identical content is shared across owners through link records, and
reads and writes happen directly against the storage backend through
short-lived signed URLs.
"""

__version__ = "0.1.0"
