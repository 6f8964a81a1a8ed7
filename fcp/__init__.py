"""
fcp - A client engine for the Freenet Client Protocol.

This package speaks FCP over a single persistent TCP connection to a node,
correlating the node's interleaved reply stream back to individual requests.
"""

__version__ = "0.9.0"
__author__ = "fcp-client Contributors"
