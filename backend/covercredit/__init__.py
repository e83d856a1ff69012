"""Cover Credit lead-capture and admin backend"""
