"""
Cairn test project: four lists, password sign-in, admin UI and session
routes.
"""
