"""Transport backends"""
