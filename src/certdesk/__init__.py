"""certdesk - operator client for a certificate authority"""
