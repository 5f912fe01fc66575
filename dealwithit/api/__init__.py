"""HTTP API for the editing workflow"""
