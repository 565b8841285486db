"""
starknet-devkit test package

Run with:
   pytest starknet_devkit/tests/ -v
"""
