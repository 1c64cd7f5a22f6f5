"""
JapanHaul storefront backend.

Order lifecycle, markup/settlement accounting and the admin back office
for a storefront reselling Japanese products.
"""
