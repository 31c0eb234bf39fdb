from valkys.main import main

main()
