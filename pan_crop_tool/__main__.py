from pan_crop_tool.app import main

main()
