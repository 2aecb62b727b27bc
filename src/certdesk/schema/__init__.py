""" Wire models (and paths) for the CA HTTP API """
