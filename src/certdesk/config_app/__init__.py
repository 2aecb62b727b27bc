""" A minimal app serving the config discovery endpoint consumed by the endpoint resolver """
