""" Module containing the HTTP access layer for the CA (endpoint resolution and the typed CA client) """
