"""HTTP interfaces: public routes and the admin router."""
