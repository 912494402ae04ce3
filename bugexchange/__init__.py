"""
Bug Exchange - bug bounty marketplace backend
"""
