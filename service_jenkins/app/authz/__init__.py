"""
Authorization package: turns a verified token subject into a policy decision.
"""
