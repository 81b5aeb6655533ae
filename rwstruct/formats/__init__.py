'''Descriptions of real file formats, built with the records of rwstruct.'''
