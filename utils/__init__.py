"""Request helpers shared by the routes."""
