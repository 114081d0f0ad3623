"""Instance inventory: listing, grouping into clusters, status resolution."""
