"""Internal, non-public modules of dns01_renewer."""
