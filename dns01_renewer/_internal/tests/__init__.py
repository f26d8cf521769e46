"""dns01_renewer tests"""
