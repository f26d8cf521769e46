"""dns01_renewer.plugins tests"""
