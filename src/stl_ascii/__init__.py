"""Render STL meshes as rotating ASCII art in the terminal."""
