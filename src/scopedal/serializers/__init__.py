"""
Serializers for records and collections.
"""
