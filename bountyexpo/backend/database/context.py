"""
Database context manager for the Flask application.
Provides database instances without explicit dependency passing.
"""
from flask import g


class DatabaseContext:
    """
    Flask context accessor for the Mongo database.
    Works in both request context (controllers) and application context.
    """

    @staticmethod
    def get_mongo_db():
        """
        Get the MongoDB database instance from Flask context.

        Works in both:
        - Request context (controllers) - uses 'g' for request-local storage
        - No request context (scripts, background threads) - direct import
        """
        try:
            if "mongo_db" not in g:
                from bountyexpo.backend.app import mongo
                g.mongo_db = mongo.db
            return g.mongo_db
        except RuntimeError:
            from bountyexpo.backend.app import mongo
            return mongo.db
