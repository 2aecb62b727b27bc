""" Module containing the certificate lifecycle logic (expiry derivations, inventory queries and operations) """
