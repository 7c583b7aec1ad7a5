"""HTTP surface: FastAPI app exposing chat and portfolio analysis"""
